"""Exit request lifecycle: states, state machine, aggregate and submission checks."""
