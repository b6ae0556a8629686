"""HTTP clients for the aircraft feed, detail lookup and watchlist source."""
