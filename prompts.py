"""Fixed instruction text sent with every extraction request."""

EXTRACTION_INSTRUCTION = "Extract the following information from the provided input based on the schema."

# Header placed between the instruction and inlined text documents
TEXT_CONTENT_HEADER = "\n\nInput File Content:\n"
