# Supabase tables: prompt_responses, messages
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

prompt_responses:
- id: uuid (primary key, default: gen_random_uuid())
- group_id: uuid (foreign key to groups.id on delete cascade, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- prompt_id: text (not null) - id from the prompt catalog
- response_date: date (not null) - UTC calendar date the prompt was assigned for
- content: text (not null, default: '')
- image_url: text (nullable)
- created_at: timestamp (default: now())
- unique constraint on (group_id, user_id, response_date)

messages (only the columns written here):
- id: uuid (primary key)
- group_id: uuid (foreign key to groups.id on delete cascade, not null)
- sender_id: uuid (not null)
- content: text (not null)
- type: text - 'prompt_response' for answers posted into the chat
- prompt_response_id: uuid (nullable)
- image_urls: text[] (nullable)
- created_at: timestamp (default: now())
"""
