import csv
import logging
import math
import re
from typing import Iterable, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Query, UploadFile

import config
from auth import AdminClaims, get_current_admin, get_current_user
from database import get_db, now
from errors import ValidationError
from querying import sector_product_code
from schemas import TradeData
from shaping import ok, serialize_doc
from storage import remove_file, server_filename, store_stream, upload_dir

logger = logging.getLogger("trade_data")

router = APIRouter()

REQUIRED_COLUMNS = ("reporter_name", "year", "partner_name", "value")
OPTIONAL_COLUMNS = ("reporter_code", "classification", "classification_version", "product_code",
                    "mtn_categories", "partner_code")
CSV_TYPES = ("text/csv", "application/csv", "application/vnd.ms-excel")


def parse_year(raw: str) -> int:
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return now().year


def parse_value(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_rows(lines: Iterable[str]) -> Tuple[List[dict], int]:
    """CSV text to trade_data documents. Returns (documents, rows seen)."""
    reader = csv.DictReader(lines)
    missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
    if missing:
        raise ValidationError(f"CSV is missing required columns: {', '.join(missing)}")

    stamp = now()
    docs, seen = [], 0
    for record in reader:
        seen += 1
        row = {k.strip(): (v or "").strip() for k, v in record.items() if k}
        if not all(row.get(c) for c in REQUIRED_COLUMNS):
            continue
        docs.append(TradeData(
            reporter_name=row["reporter_name"],
            year=parse_year(row["year"]),
            partner_name=row["partner_name"],
            value=parse_value(row["value"]),
            uploadedAt=stamp,
            **{c: row.get(c, "") for c in OPTIONAL_COLUMNS},
        ).model_dump())
    return docs, seen


def active_match(sector: Optional[str]) -> dict:
    match = {"isActive": True}
    code = sector_product_code(sector)
    if code:
        match["product_code"] = code
    return match


@router.get("/analytics")
def analytics(sector: Optional[str] = None, user: dict = Depends(get_current_user), db=Depends(get_db)):
    match = active_match(sector)
    yearly = list(db["trade_data"].aggregate([
        {"$match": match},
        {"$group": {
            "_id": {"year": "$year", "partner": "$partner_name", "category": "$mtn_categories"},
            "totalValue": {"$sum": "$value"},
            "recordCount": {"$sum": 1},
        }},
        {"$group": {
            "_id": "$_id.year",
            "partners": {"$push": {"partner": "$_id.partner", "category": "$_id.category", "value": "$totalValue"}},
            "totalYearValue": {"$sum": "$totalValue"},
        }},
        {"$sort": {"_id": -1}},
        {"$limit": 10},
    ]))
    top_partners = list(db["trade_data"].aggregate([
        {"$match": match},
        {"$group": {
            "_id": "$partner_name",
            "totalValue": {"$sum": "$value"},
            "avgValue": {"$avg": "$value"},
            "years": {"$addToSet": "$year"},
        }},
        {"$sort": {"totalValue": -1}},
        {"$limit": 10},
    ]))
    return ok({"yearlyAnalytics": yearly, "topPartners": top_partners})


@router.get("/filtered")
def filtered(
    sector: Optional[str] = None,
    partner: Optional[str] = None,
    year: Optional[int] = None,
    start_year: Optional[int] = Query(None, alias="startYear"),
    end_year: Optional[int] = Query(None, alias="endYear"),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    match = active_match(sector)
    if partner and partner.strip():
        match["partner_name"] = {"$regex": re.escape(partner.strip()), "$options": "i"}
    if year is not None:
        match["year"] = year
    if start_year is not None or end_year is not None:
        bounds = {}
        if start_year is not None:
            bounds["$gte"] = start_year
        if end_year is not None:
            bounds["$lte"] = end_year
        match["year"] = bounds

    rows = [serialize_doc(r) for r in db["trade_data"].find(match).sort([("year", -1), ("value", -1)])]
    return ok(rows, count=len(rows))


@router.get("/summary")
def summary(admin: AdminClaims = Depends(get_current_admin), db=Depends(get_db)):
    rows = list(db["trade_data"].aggregate([
        {"$group": {
            "_id": None,
            "totalRecords": {"$sum": 1},
            "latestYear": {"$max": "$year"},
            "oldestYear": {"$min": "$year"},
            "totalValue": {"$sum": "$value"},
            "uniquePartners": {"$addToSet": "$partner_name"},
            "categories": {"$addToSet": "$mtn_categories"},
        }},
    ]))
    data = {
        "totalRecords": 0,
        "latestYear": None,
        "oldestYear": None,
        "totalValue": 0,
        "uniquePartners": [],
        "categories": [],
    }
    if rows:
        data.update({k: v for k, v in rows[0].items() if k != "_id"})
    for key in ("uniquePartners", "categories"):
        data[key] = sorted(data[key] or [])
    return ok(data)


@router.post("/upload")
def upload(
    csv_file: UploadFile = File(..., alias="csvFile"),
    admin: AdminClaims = Depends(get_current_admin),
    db=Depends(get_db),
):
    name = csv_file.filename or ""
    if csv_file.content_type not in CSV_TYPES and not name.lower().endswith(".csv"):
        raise ValidationError("Only CSV files are allowed")

    path, _ = store_stream(
        csv_file.file, upload_dir("trade-data"), server_filename("trade-data", name or "upload.csv"),
        config.TRADE_DATA_MAX_FILE_SIZE,
    )
    try:
        try:
            with open(path, newline="", encoding="utf-8-sig") as fh:
                docs, seen = parse_rows(fh)
        except (UnicodeDecodeError, csv.Error) as exc:
            logger.warning("Rejected unreadable trade data CSV %s: %s", name, exc)
            raise ValidationError("Invalid CSV file") from exc
        if not docs:
            raise ValidationError("No valid trade data found in CSV")
        result = db["trade_data"].insert_many(docs)
    finally:
        remove_file(path)

    inserted = len(result.inserted_ids)
    logger.info("Trade data uploaded: %d of %d rows by admin %s", inserted, seen, admin.admin_id)
    return ok(
        {"recordsInserted": inserted, "totalProcessed": seen},
        message=f"Successfully uploaded {inserted} trade records",
    )


@router.delete("/clear")
def clear(admin: AdminClaims = Depends(get_current_admin), db=Depends(get_db)):
    result = db["trade_data"].delete_many({})
    logger.info("All trade data cleared by admin %s", admin.admin_id)
    return ok(message=f"Cleared {result.deleted_count} trade data records")
