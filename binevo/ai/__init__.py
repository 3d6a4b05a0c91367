"""Copy generation with pydantic-ai agents."""
