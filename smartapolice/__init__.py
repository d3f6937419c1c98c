"""Utilitários do SmartApólice: acesso ao Supabase, PDFs, parcelas, frota e integrações."""

__version__ = "0.4.0"
