"""Flow controllers for each bridge."""
