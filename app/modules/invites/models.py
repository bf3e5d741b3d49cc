# Supabase table: group_invites
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- group_id: uuid (foreign key to groups.id on delete cascade, not null)
- invited_by: uuid (foreign key to profiles.id, not null)
- invite_token: text (unique, not null) - 64 hex chars
- email: text (nullable)
- expires_at: timestamp (not null)
- used_at: timestamp (nullable) - set once, never cleared
- used_by: uuid (nullable)
- created_at: timestamp (default: now())
"""
