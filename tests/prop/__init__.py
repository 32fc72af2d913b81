"""
Property-based tests for the 8086 decoder.

Strategies generate well-formed encodings together with their expected
byte length so the decode loop can be checked against an independent
length model. Example counts are controlled by `I8086_PROP_EXAMPLES` for
the fast lane and `I8086_PROP_NIGHTLY_EXAMPLES` for the nightly job.
"""
