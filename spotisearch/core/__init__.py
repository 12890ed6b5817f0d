"""Host-independent decision logic."""
