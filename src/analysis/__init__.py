"""Cost analysis: result models, comparison math and the analysis session."""
