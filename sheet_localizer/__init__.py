"""Fill missing translations of a localization sheet through a batch translation API."""
