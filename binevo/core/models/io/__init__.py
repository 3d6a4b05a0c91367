"""
Request and response schemas for the REST API.

These pydantic models define the contract between the API and its clients;
database entities never leave the server directly.
"""
