"""Properties app package.

This app encapsulates the property record the reservation engine reads,
its per-date availability calendar and the host's cancellation
policies, together with the services maintaining them.
"""
