import boto3
from botocore.exceptions import BotoCoreError, ClientError

from gigsync import config
from gigsync.pipeline.runlog import console_log


def _has_credentials():
    return all([config.R2_ACCOUNT_ID, config.R2_ACCESS_KEY_ID, config.R2_SECRET_ACCESS_KEY])


def _client():
    return boto3.client(
        "s3",
        endpoint_url=f"https://{config.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=config.R2_ACCESS_KEY_ID,
        aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
    )


def download_from_r2(key, local_path, log_func=None):
    """
    Download a file from R2 if it exists.
    Returns True if downloaded, False if not found or not configured.
    """
    log = log_func or console_log

    if not _has_credentials():
        return False

    try:
        response = _client().get_object(Bucket=config.R2_BUCKET_NAME, Key=key)
    except ClientError as e:
        log(f"R2 download skipped for {key}: {e}")
        return False

    local_path.parent.mkdir(parents=True, exist_ok=True)
    with open(local_path, "wb") as f:
        f.write(response["Body"].read())
    log(f"Downloaded {key} from R2")
    return True


def upload_to_r2(paths, log_func=None):
    """
    Upload local files to Cloudflare R2.
    paths: list of (local_path, key, content_type)
    Returns True if successful, False otherwise.
    """
    log = log_func or console_log

    if not _has_credentials():
        log("R2 upload skipped: missing R2 credentials")
        return False

    try:
        s3 = _client()
        uploaded = []
        for path, key, content_type in paths:
            if path.exists():
                with open(path, "rb") as f:
                    s3.put_object(
                        Bucket=config.R2_BUCKET_NAME,
                        Key=key,
                        Body=f.read(),
                        ContentType=content_type,
                    )
                uploaded.append(key)
    except (BotoCoreError, ClientError) as e:
        log(f"R2 upload failed: {e}", "ERROR")
        return False

    log(f"Uploaded to R2: {', '.join(uploaded)}")
    return True


def download_database(log_func=None):
    return download_from_r2(config.R2_DATABASE_KEY, config.DATABASE_PATH, log_func=log_func)


def upload_run_artifacts(log_func=None):
    return upload_to_r2(
        [
            (config.DATABASE_PATH, config.R2_DATABASE_KEY, "application/vnd.sqlite3"),
            (config.STATUS_PATH, "scrape-status.json", "application/json"),
            (config.LOG_PATH, "scrape-log.txt", "text/plain"),
        ],
        log_func=log_func,
    )
