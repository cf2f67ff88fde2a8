# items/signals.py

from django.dispatch import Signal

# Sent after the transaction that moved an item into a terminal status commits.
# Keyword arguments: item_id, status.
item_reached_terminal_status = Signal()
