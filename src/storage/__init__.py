"""Write-once item storage on the local filesystem."""
