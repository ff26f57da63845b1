"""Domain core for verse studies: references, scheduling, streaks, content and the study workflow."""
