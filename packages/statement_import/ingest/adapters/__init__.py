"""Fixed-layout row parsers: manual template, Sabadell and CaixaBank."""
