"""
Prompt manager service.

A FastAPI application where users sign in with Google through a hosted
backend (Supabase), keep a personal library of AI prompts, filter them by
category and text, and attach images to Art prompts.
"""
