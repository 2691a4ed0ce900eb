"""
End-to-end tests: chained transformations and the batch job over
tests/data/ocpp_messages.jsonl.
"""
