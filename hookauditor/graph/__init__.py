"""Control flow graphs and dominance for JavaScript functions."""
