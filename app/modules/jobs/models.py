# Supabase table: jobs
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in store.py

"""
Expected Supabase table structure:
- id: uuid (primary key) - uuid5 of idempotency_key, so duplicate admissions collide
- idempotency_key: text (unique, not null)
- kind: text (not null) - values: create-group, delete-group, leave-group, accept-invite
- payload: jsonb (not null)
- status: text (not null, default: 'pending') - values: pending, in_flight, done, failed
- attempts: int (not null, default: 0)
- max_attempts: int (not null)
- next_attempt_at: timestamp (not null, default: now())
- locked_until: timestamp (nullable) - lease of the worker holding an in_flight job
- result: jsonb (nullable)
- error: jsonb (nullable) - {kind, code, message}
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
- index on (status, next_attempt_at)
"""
