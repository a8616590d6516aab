# semlakit

semlakit holds the pieces needed to speak a line-oriented licensing protocol
between a tool and a library vendor's executable over TLS.

- `semlakit.protocol`: the command table (`CommandId`, `MessageForm`,
  `CommandInfo`, `command_info`, `lookup_command`, `tokens_for_form`), the
  error codes carried by ERROR messages (`ProtocolErrorId`), `tokenize`, and
  `parse_command`. `parse_command` turns a header line such as `"FILE 42"`
  into a `Command`, or raises `ParseError`, whose `kind` is a `GrammarError`.
- `semlakit.messaging`: builds framed messages (`simple_form`, `number_form`,
  `length_form`, `number_and_length_form`), sends them over a channel
  (`send_simple_form`, `send_number_form`, `send_length_form`, `send_string`,
  `send_number_and_length_form`, `send_error`), reads a whole command and its
  data part with `read_command`, splits off a data part with `extract_data`,
  reads files with `read_file`, and opens a debug log named by an environment
  variable with `open_log`.
- `semlakit.secure`: RSA key loading (`load_rsa_key`), public-key export as a
  `-----BEGIN PUBLIC KEY-----` block (`public_key_pem`), self-signed one-year
  certificates signed with SHA-1 (`generate_certificate`), TLS contexts for
  either `Role` (`create_context`), readable TLS error text
  (`ssl_error_string`), and `SecureChannel`, which writes and reads whole
  messages over a socket.
- `semlakit.errors`: `MlleError`, an exception carrying a domain, a code, a
  message and an optional cause, and `format_error`, which builds one from a
  `%`-style template (messages are cut to 2047 characters).

## Installation

```
pip install semlakit
```

## Message forms

Each command has one of four forms:

| Form              | Wire layout                      | Commands |
|-------------------|----------------------------------|----------|
| simple            | `NAME\n`                         | NOTSIMPLE, TOOLS, YES |
| number            | `NAME <number>\n`                | VERSION |
| length            | `NAME <length>\n<data>`          | FEATURE, FILE, FILECONT, LIB, LICENSE, NO, RETURNFEATURE, RETURNLICENSE, TOOLLIST |
| number and length | `NAME <number> <length>\n<data>` | ERROR |

## Example

```python
from semlakit.protocol import CommandId, ParseError, parse_command
from semlakit.messaging import length_form

frame = length_form(CommandId.FILE, b"Modelica/package.mo")
# b"FILE 19\nModelica/package.mo"

command = parse_command("VERSION 3")
assert command.id is CommandId.VERSION and command.number == 3

try:
    parse_command("VERSION three")
except ParseError as exc:
    print(exc.kind, exc)
```

Any object with `write_message(data)` and `read_message()` methods can be
passed where the messaging functions take a channel; `SecureChannel` is the
one the package provides. `read_command` raises `MlleError` on a transport
error, a grammar error, or a message that lacks its data part.

## TLS contexts

`create_context(private_key, Role.CLIENT)` makes a client context that does
not verify the server. `create_context(private_key, Role.SERVER)` makes a
server context that presents a self-signed certificate for the given key and
asks the client for a certificate without requiring one. Both use the cipher
selection `HIGH:!DSS:!aNULL@STRENGTH`.

## What the package does not do

semlakit provides the protocol building blocks only. It has no command-line
program, no licensing server or client loop that answers or issues the
commands above, and no encryption or decryption of library files.

## Running the tests

```
pip install -e ".[test]"
pytest
```