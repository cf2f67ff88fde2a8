# decisions/choices.py

from django.db import models
from django.utils.translation import gettext_lazy as _


class AgentType(models.TextChoices):
    FILER = "FILER", _("Filer")
    LIBRARIAN = "LIBRARIAN", _("Librarian")
    PRIORITIZER = "PRIORITIZER", _("Prioritizer")
    STORER = "STORER", _("Storer")
    RETRIEVER = "RETRIEVER", _("Retriever")


class Feedback(models.TextChoices):
    CONFIRMED = "CONFIRMED", _("Confirmed")
    CORRECTED = "CORRECTED", _("Corrected")
    IGNORED = "IGNORED", _("Ignored")
    OVERRIDDEN = "OVERRIDDEN", _("Overridden")


# Feedback values that carry a replacement action from the human
CORRECTING_FEEDBACK = frozenset({Feedback.CORRECTED, Feedback.OVERRIDDEN})
