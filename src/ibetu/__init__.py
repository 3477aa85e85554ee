"""IBetU: social wagering between friends."""
