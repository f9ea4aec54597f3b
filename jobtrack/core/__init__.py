"""Framework-free building blocks: errors, events, job state."""
