from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import logging
import time as _time
import uuid

from .coefficient_calculator import CoefficientCalculator, calculate_effective_coefficients
from .config import settings
from .config_resolver import ConfigResolver, get_config_status
from .exceptions import FinanceError, ConfigNotFoundError
from .models import (
    CoefficientRequest, ResolveConfigRequest, FinanceBatchRequest, ProjectStatsRequest,
    DailyReportRequest, EffectiveCoefficientsRequest, FinanceResponse, CONFIG_STATUS_NAMES
)
from .services import CollaborationFinanceEvaluator, AggregationEngine

# 配置日志
logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# 创建FastAPI应用
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.DESCRIPTION,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应指定具体的 origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _raise_http_error(tag: str, request_id: str, start_time: float, e: Exception):
    """统一的异常到HTTP状态码映射"""
    elapsed = round(_time.time() - start_time, 2)
    if isinstance(e, ConfigNotFoundError):
        logger.warning(f"[{tag}] 未找到配置 | 请求ID: {request_id} | 耗时: {elapsed}秒 | {e}")
        raise HTTPException(status_code=404, detail={"message": str(e), "request_id": request_id})
    if isinstance(e, FinanceError):
        logger.warning(f"[{tag}] 参数错误 | 请求ID: {request_id} | 耗时: {elapsed}秒 | {e}")
        raise HTTPException(status_code=400, detail={"message": str(e), "request_id": request_id})
    logger.error(f"[{tag}] 失败 | 请求ID: {request_id} | 耗时: {elapsed}秒 | 错误: {str(e)}", exc_info=True)
    raise HTTPException(status_code=500, detail={"message": f"处理请求时发生错误: {str(e)}",
                                                 "request_id": request_id})


@app.get("/health", tags=["系统"])
async def health():
    return {"status": "ok", "version": settings.API_VERSION}


@app.post("/finance/coefficient", response_model=FinanceResponse, tags=["系数计算"])
async def calculate_coefficient(request: CoefficientRequest):
    """
    按费率配置计算刊例价对应的结算金额和支付系数
    """
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[系数计算] 开始 | 请求ID: {request_id} | 平台: {request.config.platform} | "
                f"刊例价: {request.base_amount}")

    try:
        calculator = CoefficientCalculator()
        result = calculator.calculate(request.base_amount, request.config)
        data = result.model_dump(mode="json")
        data["display_coefficient"] = calculator.display(result.coefficient)
        elapsed = round(_time.time() - start_time, 2)
        logger.info(f"[系数计算] 完成 | 请求ID: {request_id} | 耗时: {elapsed}秒 | 系数: {data['display_coefficient']}")
        return {
            "success": True,
            "message": "计算完成",
            "data": data,
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("系数计算", request_id, start_time, e)


@app.post("/finance/resolve", response_model=FinanceResponse, tags=["配置匹配"])
async def resolve_config(request: ResolveConfigRequest):
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[配置匹配] 开始 | 请求ID: {request_id} | 平台: {request.platform} | 日期: {request.as_of}")

    try:
        config = ConfigResolver(request.configs).resolve(request.platform, request.as_of)
        status = get_config_status(config, request.as_of)
        return {
            "success": True,
            "message": "匹配成功",
            "data": {
                "config": config.model_dump(mode="json", by_alias=True),
                "status": status.value,
                "status_name": CONFIG_STATUS_NAMES[status],
            },
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("配置匹配", request_id, start_time, e)


@app.post("/finance/evaluate", response_model=FinanceResponse, tags=["合作财务"])
async def evaluate_collaborations(request: FinanceBatchRequest):
    """
    批量计算合作记录的财务数据，单条失败会在 failures 中返回，不影响其他记录
    """
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[合作财务] 开始 | 请求ID: {request_id} | 合作数: {len(request.collaborations)} | "
                f"配置数: {len(request.configs)}")

    try:
        evaluator = CollaborationFinanceEvaluator(request.configs, request.order_price_ratios)
        report = evaluator.evaluate_many(request.collaborations)
        elapsed = round(_time.time() - start_time, 2)
        logger.info(f"[合作财务] 完成 | 请求ID: {request_id} | 耗时: {elapsed}秒 | "
                    f"成功: {len(report.results)} | 失败: {len(report.failures)}")
        return {
            "success": not report.failures,
            "message": "计算完成" if not report.failures else f"{len(report.failures)} 条记录财务数据无法计算",
            "data": report.model_dump(mode="json"),
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("合作财务", request_id, start_time, e)


@app.post("/finance/tracking-stats", response_model=FinanceResponse, tags=["项目统计"])
async def tracking_stats(request: FinanceBatchRequest):
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[追踪统计] 开始 | 请求ID: {request_id} | 合作数: {len(request.collaborations)}")

    try:
        evaluator = CollaborationFinanceEvaluator(request.configs, request.order_price_ratios)
        stats = AggregationEngine(evaluator).aggregate(request.collaborations)
        elapsed = round(_time.time() - start_time, 2)
        logger.info(f"[追踪统计] 完成 | 请求ID: {request_id} | 耗时: {elapsed}秒")
        return {
            "success": True,
            "message": "统计完成",
            "data": stats.model_dump(mode="json"),
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("追踪统计", request_id, start_time, e)


@app.post("/finance/project-stats", response_model=FinanceResponse, tags=["项目统计"])
async def project_stats(request: ProjectStatsRequest):
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[项目财务] 开始 | 请求ID: {request_id} | 合作数: {len(request.collaborations)} | "
                f"资金占用费: {request.funds_occupation_enabled}")

    try:
        evaluator = CollaborationFinanceEvaluator(request.configs, request.order_price_ratios)
        stats = AggregationEngine(evaluator).project_finance_stats(
            request.collaborations,
            monthly_rate=request.monthly_rate,
            funds_occupation_enabled=request.funds_occupation_enabled,
            as_of=request.as_of,
            filter_by_status=request.filter_by_status,
        )
        elapsed = round(_time.time() - start_time, 2)
        logger.info(f"[项目财务] 完成 | 请求ID: {request_id} | 耗时: {elapsed}秒 | 总收入: {stats.total_revenue}")
        return {
            "success": True,
            "message": "统计完成",
            "data": stats.model_dump(mode="json"),
            "request_id": request_id
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "request_id": request_id})
    except Exception as e:
        _raise_http_error("项目财务", request_id, start_time, e)


@app.post("/finance/daily-report", response_model=FinanceResponse, tags=["项目统计"])
async def daily_report(request: DailyReportRequest):
    """
    日报明细：当日CPM及环比变化，财务数据无法计算的记录在 failures 中返回
    """
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[日报明细] 开始 | 请求ID: {request_id} | 合作数: {len(request.collaborations)} | "
                f"日期: {request.report_date}")

    try:
        evaluator = CollaborationFinanceEvaluator(request.configs, request.order_price_ratios)
        report = AggregationEngine(evaluator).daily_report_details(request.collaborations, request.report_date)
        elapsed = round(_time.time() - start_time, 2)
        logger.info(f"[日报明细] 完成 | 请求ID: {request_id} | 耗时: {elapsed}秒 | "
                    f"明细: {len(report.details)} | 失败: {len(report.failures)}")
        return {
            "success": not report.failures,
            "message": "统计完成" if not report.failures else f"{len(report.failures)} 条记录财务数据无法计算",
            "data": report.model_dump(mode="json"),
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("日报明细", request_id, start_time, e)


@app.post("/finance/effective-coefficients", response_model=FinanceResponse, tags=["系数计算"])
async def effective_coefficients(request: EffectiveCoefficientsRequest):
    request_id = str(uuid.uuid4())
    start_time = _time.time()
    logger.info(f"[有效系数] 开始 | 请求ID: {request_id} | 平台数: {len(request.strategies)} | 日期: {request.as_of}")

    try:
        coefficients = calculate_effective_coefficients(request.strategies, request.as_of)
        return {
            "success": True,
            "message": f"共 {len(coefficients)} 个平台有生效系数",
            "data": coefficients,
            "request_id": request_id
        }
    except Exception as e:
        _raise_http_error("有效系数", request_id, start_time, e)
