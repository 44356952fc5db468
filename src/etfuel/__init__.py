"""
ETFUEL fleet and fuel-station management backend.

Authentication handlers proxying to Firebase Authentication and Cloud
Firestore, plus the client-side session store.
"""

__version__ = "0.1.0"
