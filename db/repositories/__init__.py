"""Repository layer for the event attendee pipeline.

Provides lookup, dedup, and query methods for the pipeline entities:
- contacts: find_by_id, find_all_by_org, find_by_tags, get_by_email,
            upsert, add_tags
- events: get_by_id, get_for_org, create, get_stages_for_event
- pipeline: get_by_id, find, find_one, create, find_or_create, update,
            list_by_event_and_stage, stage_counts
- attendees: get_by_id, find_one, list_by_event, upsert
"""
