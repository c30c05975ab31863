"""Itinerary interpretation and map-action resolution for a chat-driven map assistant."""
