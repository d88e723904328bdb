"""
Kundli proxy package.

Provides:
- Cached OAuth2 client-credentials tokens for the Prokerala astrology API
- Place geocoding via Nominatim (OpenStreetMap)
- Chart generation proxy + response reshaping, served with FastAPI
"""
