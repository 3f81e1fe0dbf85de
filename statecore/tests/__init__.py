"""
Test suite for the state store.

Focus areas:
- Registry replace/remove semantics
- Dispatch ordering (commit before effects, depth-first nesting)
- Queued and delayed dispatch through the scheduler
- Error propagation and the abort policy
- Subscriptions and reactions
"""
