"""Statistical validation tests for hypotest-sim."""
