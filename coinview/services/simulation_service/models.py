"""
Pydantic models for the Simulation Service.

Wire names follow the optimizer contract (camelCase); Python attributes are
snake_case and both spellings are accepted on input.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from coinview.shared.data_providers.interfaces import Asset

MIN_COINS = 2
MAX_COINS = 20
MIN_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 1825


class Timeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class OptimizationType(str, Enum):
    SHARPE = "sharpe"
    GENETIC_ALGORITHM = "genetic_algorithm"
    RISK_PARITY = "risk_parity"
    MOMENTUM = "momentum"
    CUSTOM_AI = "custom_ai"


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class SimulationStatus(str, Enum):
    COMPLETED = "completed"
    PROCESSING = "processing"
    FAILED = "failed"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Request

class CoinRef(BaseModel):
    """The part of an asset the optimizer needs."""
    id: str
    symbol: str
    name: str

    class Config:
        frozen = True

    @classmethod
    def from_asset(cls, asset: Asset) -> "CoinRef":
        return cls(id=asset.id, symbol=asset.symbol, name=asset.name)


class DateRange(BaseModel):
    start_date: str = Field(..., alias="startDate")
    end_date: str = Field(..., alias="endDate")

    class Config:
        populate_by_name = True


class SimulationParams(BaseModel):
    """Parameters collected by the wizard; any of them may still be unset."""
    timeframe: Optional[Timeframe] = Timeframe.DAILY
    optimization_type: Optional[OptimizationType] = Field(OptimizationType.SHARPE, alias="optimizationType")
    risk_tolerance: Optional[RiskTolerance] = Field(RiskTolerance.MODERATE, alias="riskTolerance")
    initial_investment: Optional[float] = Field(10000, alias="initialInvestment")

    class Config:
        populate_by_name = True


class SimulationRequest(BaseModel):
    coins: List[CoinRef]
    date_range: DateRange = Field(..., alias="dateRange")
    timeframe: Timeframe
    optimization_type: OptimizationType = Field(..., alias="optimizationType")
    risk_tolerance: Optional[RiskTolerance] = Field(None, alias="riskTolerance")
    initial_investment: float = Field(..., alias="initialInvestment")

    class Config:
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Response (produced by the optimizer; only the persisted fields matter here)

class Performance(BaseModel):
    total_return: float = Field(0, alias="totalReturn")
    annualized_return: float = Field(0, alias="annualizedReturn")
    volatility: float = 0
    sharpe_ratio: float = Field(0, alias="sharpeRatio")
    max_drawdown: float = Field(0, alias="maxDrawdown")
    win_rate: float = Field(0, alias="winRate")

    class Config:
        populate_by_name = True
        extra = "allow"


class Allocation(BaseModel):
    coin_id: str = Field(..., alias="coinId")
    symbol: str
    weight: float
    amount: float

    class Config:
        populate_by_name = True
        extra = "allow"


class PortfolioMetrics(BaseModel):
    start_value: float = Field(0, alias="startValue")
    end_value: float = Field(0, alias="endValue")
    total_profit: float = Field(0, alias="totalProfit")
    profit_percentage: float = Field(0, alias="profitPercentage")

    class Config:
        populate_by_name = True
        extra = "allow"


class Portfolio(BaseModel):
    allocations: List[Allocation] = []
    performance: Performance = Field(default_factory=Performance)
    metrics: PortfolioMetrics = Field(default_factory=PortfolioMetrics)
    daily_returns: List[Dict] = Field(default_factory=list, alias="dailyReturns")

    class Config:
        populate_by_name = True
        extra = "allow"


class RiskMetrics(BaseModel):
    var95: float = 0
    cvar95: float = 0
    beta: float = 0
    correlation: float = 0

    class Config:
        extra = "allow"


class SimulationResponse(BaseModel):
    id: str
    timestamp: str
    request: SimulationRequest
    portfolio: Portfolio = Field(default_factory=Portfolio)
    risk_metrics: RiskMetrics = Field(default_factory=RiskMetrics, alias="riskMetrics")
    status: SimulationStatus
    processing_time: Optional[float] = Field(None, alias="processingTime")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"


# History

class HistoryItem(BaseModel):
    id: str
    name: str
    timestamp: str
    optimization_type: str = Field(..., alias="optimizationType")
    initial_investment: float = Field(..., alias="initialInvestment")
    total_return: float = Field(0, alias="totalReturn")
    status: SimulationStatus

    class Config:
        frozen = True
        populate_by_name = True


class HistoryPage(BaseModel):
    items: List[HistoryItem] = []
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = Field(0, alias="totalPages")

    class Config:
        populate_by_name = True


class HistoryStats(BaseModel):
    total: int = 0
    completed: int = 0
    processing: int = 0
    failed: int = 0
    success_rate: float = Field(0, alias="successRate")
    total_investment: float = Field(0, alias="totalInvestment")
    average_return: float = Field(0, alias="averageReturn")
    by_optimization_type: Dict[str, int] = Field(default_factory=dict, alias="byOptimizationType")

    class Config:
        populate_by_name = True


class ValidationIssue(BaseModel):
    """One rule violation; validation returns these as data, never raises."""
    field: str
    message: str

    class Config:
        frozen = True


# Option catalogues

class OptimizationTypeOption(BaseModel):
    id: OptimizationType
    name: str
    description: str
    complexity: Complexity
    estimated_time: int = Field(..., alias="estimatedTime")
    features: List[str] = []

    class Config:
        frozen = True
        populate_by_name = True


class ChoiceOption(BaseModel):
    id: str
    name: str
    description: str

    class Config:
        frozen = True


OPTIMIZATION_TYPES: List[OptimizationTypeOption] = [
    OptimizationTypeOption(
        id=OptimizationType.SHARPE,
        name="Sharpe Ratio",
        description="Maximizes risk-adjusted return using the Sharpe ratio",
        complexity=Complexity.LOW,
        estimated_time=30,
        features=["Risk/return optimization", "Volatility analysis", "Recommended for beginners"],
    ),
    OptimizationTypeOption(
        id=OptimizationType.GENETIC_ALGORITHM,
        name="Genetic Algorithm",
        description="Uses evolutionary search to find the best asset combination",
        complexity=Complexity.HIGH,
        estimated_time=120,
        features=["Advanced optimization", "Multiple iterations", "Precise results"],
    ),
    OptimizationTypeOption(
        id=OptimizationType.RISK_PARITY,
        name="Risk Parity",
        description="Spreads risk evenly across every asset in the portfolio",
        complexity=Complexity.MEDIUM,
        estimated_time=60,
        features=["Balanced risk", "Natural diversification", "Stability"],
    ),
    OptimizationTypeOption(
        id=OptimizationType.MOMENTUM,
        name="Momentum",
        description="Favors assets trending up based on historical performance",
        complexity=Complexity.MEDIUM,
        estimated_time=45,
        features=["Market trend", "Historical performance", "Entry timing"],
    ),
    OptimizationTypeOption(
        id=OptimizationType.CUSTOM_AI,
        name="Custom AI",
        description="Machine-learning optimization across multiple factors",
        complexity=Complexity.HIGH,
        estimated_time=180,
        features=["Machine learning", "Multi-factor analysis", "Advanced optimization"],
    ),
]

RISK_TOLERANCE_OPTIONS: List[ChoiceOption] = [
    ChoiceOption(id=RiskTolerance.CONSERVATIVE.value, name="Conservative",
                 description="Capital preservation with low risk"),
    ChoiceOption(id=RiskTolerance.MODERATE.value, name="Moderate",
                 description="Balance between risk and return"),
    ChoiceOption(id=RiskTolerance.AGGRESSIVE.value, name="Aggressive",
                 description="Maximum return with higher risk tolerance"),
]

TIMEFRAME_OPTIONS: List[ChoiceOption] = [
    ChoiceOption(id=Timeframe.DAILY.value, name="Daily", description="Analysis on daily data"),
    ChoiceOption(id=Timeframe.WEEKLY.value, name="Weekly", description="Analysis on weekly data"),
    ChoiceOption(id=Timeframe.MONTHLY.value, name="Monthly", description="Analysis on monthly data"),
]


class WizardSnapshot(BaseModel):
    """Read-only view of the wizard for the HTTP layer."""
    is_open: bool = Field(False, alias="isOpen")
    current_step: int = Field(0, alias="currentStep")
    selected_coins: List[CoinRef] = Field(default_factory=list, alias="selectedCoins")
    params: SimulationParams = Field(default_factory=SimulationParams)
    is_submitting: bool = Field(False, alias="isSubmitting")
    can_proceed: bool = Field(False, alias="canProceed")
    can_go_back: bool = Field(False, alias="canGoBack")
    error: Optional[str] = None
    validation_errors: List[ValidationIssue] = Field(default_factory=list, alias="validationErrors")
    current_simulation: Optional[SimulationResponse] = Field(None, alias="currentSimulation")

    class Config:
        populate_by_name = True
