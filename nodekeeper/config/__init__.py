"""Configuration records and loading of a directory of TOML files."""