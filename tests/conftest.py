import os

# Keep test runs from installing global tracer providers and instrumentors
os.environ.setdefault("DISABLE_TELEMETRY", "true")
