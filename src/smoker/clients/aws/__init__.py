"""AWS service clients (S3, SSM, SQS, Kinesis and CloudWatch Logs)."""
