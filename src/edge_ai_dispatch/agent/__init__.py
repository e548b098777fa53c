"""Dispatch client, retry executor and response post-processing."""
