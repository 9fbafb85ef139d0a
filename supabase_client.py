from flask import current_app
from supabase import create_client, Client


def get_supabase() -> Client:
    """Shared Supabase client for the current app"""
    client = current_app.extensions.get('supabase')
    if client is None:
        client = create_client(
            current_app.config['SUPABASE_URL'],
            current_app.config['SUPABASE_KEY']
        )
        current_app.extensions['supabase'] = client
    return client


def get_auth_client() -> Client:
    """Throwaway client for password sign-in.

    Signing in stores a session on the client, so it must never be the
    shared one.
    """
    factory = current_app.extensions.get('supabase_auth_factory')
    if factory is not None:
        return factory()
    return create_client(
        current_app.config['SUPABASE_URL'],
        current_app.config['SUPABASE_ANON_KEY']
    )
