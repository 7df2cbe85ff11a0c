"""Credential and link configuration stores.

Both sit on a KeyValueStore and decode every read through
ticket_bridge.services.storage.codec.
"""
