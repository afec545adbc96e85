"""Pure scheduling and attendance rules, free of any persistence concerns."""
