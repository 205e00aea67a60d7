"""Pipeline engine services.

- stages: canonical vocabulary and alias normalization
- transitions: stage transition engine
- bulk_push: push contacts into an event pipeline
- graduation: pipeline record -> attendee record
- intake: landing-form submissions
- notes: structured form-answer notes
"""
