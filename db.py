"""Supabase client for the app. Cached via Streamlit; uncached variant for scripts."""
import streamlit as st
from supabase import create_client, Client

from tryxpert.config import Settings
from tryxpert.database import DatabaseClient


def _env_client() -> Client:
    url, key = Settings.from_env().require_supabase()
    return create_client(url, key)


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()


def get_database() -> DatabaseClient:
    return DatabaseClient(get_supabase())
