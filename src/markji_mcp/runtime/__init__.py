"""Runtime: retry, batch execution, and observability."""
