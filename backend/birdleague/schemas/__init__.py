# Schemas package init
"""
Bird League Backend — API Schemas
==================================

What:  Request/response models for the HTTP layer (league.py).
Why:   Kept apart from models/ so views can change without touching the
       on-disk document format.
"""
