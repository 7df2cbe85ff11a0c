"""Ticket submission services.

Use explicit imports:
    from ticket_bridge.services.tickets.pipeline import TicketSubmissionPipeline
"""
