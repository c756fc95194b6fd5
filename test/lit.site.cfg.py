import os
import shutil

# Get the test directory and project directory dynamically
script_dir = os.path.dirname(os.path.abspath(__file__))
project_dir = os.path.dirname(script_dir)

config.txtrace_dir = project_dir

# Find txtrace dynamically
if shutil.which('txtrace'):
    config.txtrace = shutil.which('txtrace')
elif os.path.exists(os.path.join(project_dir, 'MyEnv', 'bin', 'txtrace')):
    config.txtrace = os.path.join(project_dir, 'MyEnv', 'bin', 'txtrace')
else:
    config.txtrace = "txtrace"

# Addresses and hashes baked into the fixtures under Inputs/
config.test_contracts = {
    "token_address": "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
    "vault_address": "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb",
    "sender_address": "0xcccccccccccccccccccccccccccccccccccccccc",
    "test_tx": "0x5c504ed432cb51138bcf09aa5e8a410dd4a1e204ef84bfed1be16dfba1b22060",
}

# Load the main config
lit_config.load_config(config, os.path.join(script_dir, "lit.cfg.py"))
