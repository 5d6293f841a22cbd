"""Routing: compiled path patterns, an ordered route table, and groups.

Routes are registered during setup and matched in registration order
once the app starts serving.
"""
