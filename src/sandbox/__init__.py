"""IDE sandbox layout and staging."""
