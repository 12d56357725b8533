"""
API key (application credential) service

Authenticated users may hold a small number of named API keys, called
applications. Each application is an OAuth2 client registration in the
identity provider (Keycloak), set up for the client-credentials grant, so
that the holder can exchange its client id and secret for a bearer token.

This service does not store anything itself. Every request re-reads the
owner's client registrations from the identity provider, checks the owner's
quota and the uniqueness of the requested name, and derives the next free
index (and so the client id ``{owner_id}-{index}``) from what is currently
registered. Indices freed by deletion are reused.

The client secret is generated by the identity provider and is handed back
exactly once, in the response to the create request.
"""
