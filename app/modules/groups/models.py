# Supabase tables: groups, group_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

groups:
- id: uuid (primary key) - supplied by the create-group handler, derived from the job id
- name: text (not null)
- owner_id: uuid (foreign key to profiles.id, not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

group_members:
- id: uuid (primary key, default: gen_random_uuid())
- seq: bigserial (not null) - monotonic tie-break when joined_at collides
- group_id: uuid (foreign key to groups.id on delete cascade, not null)
- user_id: uuid (foreign key to profiles.id, not null)
- role: text (not null, default: 'member') - values: owner, member
- invite_id: uuid (nullable) - invite that produced this membership
- joined_at: timestamp (default: now())
- unique constraint on (group_id, user_id)

Deleting a group cascades to group_members, group_invites, messages and
prompt_responses.
"""
