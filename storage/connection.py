# storage/connection.py
from __future__ import annotations

import streamlit as st
import gspread
from google.oauth2.service_account import Credentials

from edgeframe.prediction import PredictionEngine
from storage.gsheets import EdgeGSheets, GSheetsConfig
from storage.repo import EdgeRepo


DEFAULT_SPREADSHEET = GSheetsConfig.spreadsheet_name

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


def make_gspread_client_from_secrets() -> gspread.Client:
    """
    Expects Streamlit secrets:
      st.secrets["gcp_service_account"] = { ... service account json ... }
    """
    if "gcp_service_account" not in st.secrets:
        raise RuntimeError("Missing st.secrets['gcp_service_account'] for Google service account credentials.")

    creds = Credentials.from_service_account_info(st.secrets["gcp_service_account"], scopes=SCOPES)
    return gspread.authorize(creds)


def spreadsheet_name_from_secrets() -> str:
    """st.secrets["edgeframe"]["spreadsheet_name"], else the default."""
    section = st.secrets.get("edgeframe", {}) if hasattr(st.secrets, "get") else {}
    name = str(section.get("spreadsheet_name", "") or "").strip()
    return name or DEFAULT_SPREADSHEET


def get_repo(spreadsheet_name: str = "") -> EdgeRepo:
    """
    Cached repo instance.
    """
    @st.cache_resource
    def _build_repo(name: str) -> EdgeRepo:
        gc = make_gspread_client_from_secrets()
        db = EdgeGSheets(gc, GSheetsConfig(spreadsheet_name=name))
        return EdgeRepo(db)

    return _build_repo(spreadsheet_name or spreadsheet_name_from_secrets())


def get_engine(spreadsheet_name: str = "") -> PredictionEngine:
    return PredictionEngine(get_repo(spreadsheet_name))
