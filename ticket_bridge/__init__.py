"""Ticket Bridge: screen-recording support tickets delivered to monday.com boards."""
